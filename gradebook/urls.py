from django.urls import path

from . import views

app_name = "gradebook"

urlpatterns = [
    path("rubrics", views.rubrics, name="rubrics"),
    path("rubrics/<int:rubric_id>", views.rubric_detail, name="rubric_detail"),
    path("rubrics/<int:rubric_id>/criteria", views.criteria, name="criteria"),
    path("rubrics/<int:rubric_id>/criteria/<int:criterion_id>", views.criterion_detail, name="criterion_detail"),
    path("assignments/<int:assignment_id>/rubric", views.assignment_rubric, name="assignment_rubric"),
    path("grades", views.grades, name="grades"),
    path("grades/assignment/<int:assignment_id>", views.assignment_grades, name="assignment_grades"),
    path("grades/student/<int:student_id>", views.student_grades, name="student_grades"),
    path("grades/assignments-with-rubrics", views.assignments_with_rubrics, name="assignments_with_rubrics"),
    path("gradebook/student", views.student_gradebook, name="student"),
    path("gradebook/parent", views.parent_gradebook, name="parent"),
    path("gradebook/school", views.school_gradebook, name="school"),
    path("gradebook/export", views.export, name="export"),
]
