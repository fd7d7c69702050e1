import shutil
import tempfile

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from rest_framework import status

from accounts.tests.base import TestBase

MEDIA_ROOT = tempfile.mkdtemp()


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class UploadTests(TestBase):

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(MEDIA_ROOT, ignore_errors=True)
        super().tearDownClass()

    def upload(self, url, name, content, content_type):
        return self.client.post(
            url, {"file": SimpleUploadedFile(name, content, content_type=content_type)}, format="multipart"
        )

    def test_attachment(self):
        self.authenticate(self.parent_user)
        response = self.upload("/api/uploads/attachment", "note.pdf", b"%PDF-1.4 test", "application/pdf")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data["data"]
        self.assertTrue(data["path"].startswith(f"{self.school.pk}/{self.parent_user.pk}/attachments/"))
        self.assertTrue(data["path"].endswith(".pdf"))
        self.assertEqual(data["mime_type"], "application/pdf")
        self.assertEqual(data["size"], len(b"%PDF-1.4 test"))

    def test_extension_follows_content_type(self):
        self.authenticate(self.parent_user)
        response = self.upload("/api/uploads/attachment", "x.html", b"\x89PNG\r\n", "image/png")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        path = response.data["data"]["path"]
        self.assertTrue(path.endswith(".png"))
        self.assertNotIn(".html", path)
        self.assertEqual(response.data["data"]["file_name"], "x.html")

    def test_rejected_type(self):
        self.authenticate(self.parent_user)
        response = self.upload("/api/uploads/attachment", "run.exe", b"MZ", "application/x-msdownload")
        self.assertError(response, status.HTTP_400_BAD_REQUEST)

    @override_settings(MAX_UPLOAD_SIZE=8)
    def test_size_limit(self):
        self.authenticate(self.parent_user)
        response = self.upload("/api/uploads/attachment", "big.png", b"0123456789", "image/png")
        self.assertError(response, status.HTTP_400_BAD_REQUEST)

    def test_missing_file(self):
        self.authenticate(self.parent_user)
        response = self.client.post("/api/uploads/attachment", {}, format="multipart")
        self.assertError(response, status.HTTP_400_BAD_REQUEST)

    def test_voice_note_is_staff_only(self):
        self.authenticate(self.student_user)
        response = self.upload("/api/uploads/voice-note", "recitation.m4a", b"audio", "audio/mp4")
        self.assertError(response, status.HTTP_403_FORBIDDEN)

        self.authenticate(self.teacher_user)
        response = self.upload("/api/uploads/voice-note", "recitation.m4a", b"audio", "audio/mp4")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn("/voice-notes/", response.data["data"]["path"])
