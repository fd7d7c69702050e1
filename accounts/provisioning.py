import logging
import secrets
import string

from django.apps import apps
from django.db import DatabaseError, transaction
from rest_framework.authtoken.models import Token
from rest_framework.exceptions import ValidationError

from .api import first_error
from .models import ROLE_CHOICES, Profile, User

logger = logging.getLogger(__name__)

# role -> model holding the role-specific attributes
ROLE_MODELS = {
    "teacher": "schools.Teacher",
    "student": "students.Student",
    "parent": "students.Parent",
}

MIN_PASSWORD_LENGTH = 6


class ProvisioningError(Exception):
    pass


def generate_temp_password():
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(8)) + "A1!"


def role_record(user, role):
    """Returns the role row (Teacher/Student/Parent) for `user`, or None."""
    label = ROLE_MODELS.get(role)
    if not label:
        return None
    return apps.get_model(label).objects.filter(user=user).first()


@transaction.atomic
def provision_account(school, role, email, name, password=None, phone="", **extra):
    """
    Creates the login, its profile and the role row in one transaction.
    Returns (user, password); the password is only ever handed back here.
    """
    if role not in dict(ROLE_CHOICES):
        raise ProvisioningError(f"Unknown role: {role}")
    email = (email or "").strip().lower()
    name = (name or "").strip()
    if not email or not name:
        raise ProvisioningError("Email and name are required")
    if password and len(password) < MIN_PASSWORD_LENGTH:
        raise ProvisioningError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    password = password or generate_temp_password()

    user = User.objects.filter(email__iexact=email).first()
    if user is not None:
        profile = Profile.objects.filter(user=user).first()
        if profile is not None:
            if profile.role == role and profile.school_id == school.id:
                raise ProvisioningError(f"A {role} with this email already exists")
            raise ProvisioningError("A user with this email already exists")
        # login left behind without a profile: adopt it
        logger.info("Adopting orphaned login %s for %s", user.pk, role)
        user.set_password(password)
        user.is_active = True
        user.save(update_fields=["password", "is_active"])
    else:
        user = User.objects.create_user(email=email, password=password)

    Profile.objects.create(
        user=user, school=school, role=role, display_name=name, phone=phone or ""
    )
    label = ROLE_MODELS.get(role)
    if label:
        apps.get_model(label).objects.create(user=user, school=school, **extra)
    logger.info("Provisioned %s %s in school %s", role, user.pk, school.pk)
    return user, password


def reset_account_password(user, new_password=None):
    if new_password and len(new_password) < MIN_PASSWORD_LENGTH:
        raise ProvisioningError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    new_password = new_password or generate_temp_password()
    user.set_password(new_password)
    user.save(update_fields=["password"])
    # tokens issued under the old password stop working
    Token.objects.filter(user=user).delete()
    return new_password


def remove_account(user):
    """Deletes the login; profile, role row, links and authored rows cascade."""
    uid = user.pk
    user.delete()
    logger.info("Removed account %s", uid)


def run_bulk(items, create):
    """
    Calls `create(item)` for every item in its own savepoint so one bad row
    never aborts the batch. Returns (results, summary).
    """
    results = []
    for item in items:
        email = item.get("email", "") if isinstance(item, dict) else ""
        try:
            with transaction.atomic():
                data = create(item)
        except ProvisioningError as e:
            results.append({"email": email, "success": False, "error": str(e)})
            continue
        except ValidationError as e:
            results.append({"email": email, "success": False, "error": first_error(e.detail)})
            continue
        except (DatabaseError, OverflowError) as e:
            logger.warning("Bulk row %s failed: %s", email, e)
            results.append({"email": email, "success": False, "error": "Could not save this record"})
            continue
        results.append({"email": email, "success": True, "data": data})
    succeeded = sum(1 for r in results if r["success"])
    summary = {"total": len(results), "succeeded": succeeded, "failed": len(results) - succeeded}
    logger.info("Bulk provisioning: %s", summary)
    return results, summary
