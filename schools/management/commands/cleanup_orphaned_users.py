from django.core.management.base import BaseCommand, CommandError
from schools.models import School
from schools.services import cleanup_orphaned_users


class Command(BaseCommand):
    help = "Remove students/teachers of a school that are not in the keep lists, with their logins"

    def add_arguments(self, parser):
        parser.add_argument("school_id", type=int)
        parser.add_argument("--keep-students", default="", help="Comma separated student ids to keep")
        parser.add_argument("--keep-teachers", default="", help="Comma separated teacher ids to keep")

    def handle(self, *args, **options):
        school = School.objects.filter(pk=options["school_id"]).first()
        if school is None:
            raise CommandError(f"School {options['school_id']} does not exist")
        keep_students = [int(x) for x in options["keep_students"].split(",") if x.strip()]
        keep_teachers = [int(x) for x in options["keep_teachers"].split(",") if x.strip()]
        counts = cleanup_orphaned_users(school, keep_students, keep_teachers)
        self.stdout.write(self.style.SUCCESS(
            f"Removed {counts['students']} students, {counts['teachers']} teachers, "
            f"{counts['profiles']} orphaned profiles from '{school.name}'"
        ))
