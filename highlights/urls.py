from django.urls import path
from . import views

app_name = "highlights"

urlpatterns = [
    path("highlights", views.highlights, name="list"),
    path("highlights/<int:highlight_id>", views.highlight_detail, name="detail"),
    path("highlights/<int:highlight_id>/complete", views.complete_highlight, name="complete"),
    path("highlights/<int:highlight_id>/notes", views.notes, name="notes"),
    path("highlights/<int:highlight_id>/notes/thread", views.notes_thread, name="notes_thread"),
    path("notes/<int:note_id>/mark-seen", views.mark_note_seen, name="mark_note_seen"),
    path("homework", views.homework, name="homework"),
    path("homework/student/<int:student_id>", views.student_homework, name="student_homework"),
    path("homework/<int:highlight_id>/complete", views.complete_homework, name="complete_homework"),
    path("homework/<int:highlight_id>/reply", views.homework_reply, name="homework_reply"),
]
