from allauth.account.adapter import DefaultAccountAdapter


class SchoolAccountAdapter(DefaultAccountAdapter):
    """Accounts are provisioned by a school; allauth only handles password reset."""

    def is_open_for_signup(self, request):
        return False
