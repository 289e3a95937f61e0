"""
Tests unitaires du stockage des pièces jointes.
"""

import io
from types import SimpleNamespace

import pytest

from app.config import settings
from app.exceptions import NotFoundError, ValidationError
from app.services.attachment_storage import attachment_path, remove_files, sanitize_filename, save_uploads


def upload(name="menu.pdf", content=b"%PDF-1.4", content_type="application/pdf"):
    return SimpleNamespace(filename=name, content_type=content_type, file=io.BytesIO(content))


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    return tmp_path


def test_sanitize_filename():
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("menu de la semaine.pdf") == "menu_de_la_semaine.pdf"


def test_save_uploads_ecrit_les_fichiers(upload_dir):
    stored = save_uploads([upload(), upload("plan.png", b"\x89PNG", "image/png")])
    assert len(stored) == 2
    assert stored[0].original_name == "menu.pdf"
    assert (upload_dir / stored[0].filename).read_bytes() == b"%PDF-1.4"
    assert attachment_path(stored[1].filename).is_file()


def test_save_uploads_trop_de_fichiers(upload_dir):
    with pytest.raises(ValidationError) as exc:
        save_uploads([upload(f"f{i}.pdf") for i in range(6)])
    assert exc.value.error == "too_many_files"
    assert list(upload_dir.iterdir()) == []


def test_save_uploads_type_refuse_n_ecrit_rien(upload_dir):
    with pytest.raises(ValidationError) as exc:
        save_uploads([upload(), upload("script.sh", b"#!/bin/sh", "text/x-shellscript")])
    assert exc.value.error == "invalid_file_type"
    assert list(upload_dir.iterdir()) == []


def test_save_uploads_fichier_trop_gros(monkeypatch):
    monkeypatch.setattr(settings, "MAX_ATTACHMENT_SIZE_MB", 0)
    with pytest.raises(ValidationError) as exc:
        save_uploads([upload()])
    assert exc.value.error == "file_too_large"


def test_fichier_absent_du_disque():
    with pytest.raises(NotFoundError):
        attachment_path("123-inexistant.pdf")


def test_remove_files_tolere_les_absents(upload_dir):
    (upload_dir / "a.pdf").write_bytes(b"x")
    remove_files(["a.pdf", "b.pdf"])
    assert not (upload_dir / "a.pdf").exists()
