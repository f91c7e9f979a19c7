"""
tests/test_config_and_engine.py — Configuration, Backend Selection & Transactions
==================================================================================
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from parley.config import load_config
from parley.database.engine import create_db_engine, get_session, init_db
from parley.database.models import User
from parley.errors import NotFoundError, StorageError, ValidationError


class TestLoadConfig:
    def test_reads_required_and_optional_keys(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "community_name: Parley Test\napi_port: 9001\nstorage_backend: memory\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.community_name == "Parley Test"
        assert cfg.api_port == 9001
        assert cfg.storage_backend == "memory"

    def test_storage_backend_optional(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("community_name: X\napi_port: 8000\n", encoding="utf-8")
        assert load_config(path).storage_backend is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_required_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("community_name: X\n", encoding="utf-8")
        with pytest.raises(KeyError):
            load_config(path)


class TestBackendSelection:
    def test_memory_backend(self):
        engine = create_db_engine(backend="memory")
        assert engine.url.get_backend_name() == "sqlite"

    def test_postgres_without_url_falls_back_to_memory(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("DATABASE_URL", None)
            engine = create_db_engine(backend="postgres")
        assert engine.url.get_backend_name() == "sqlite"

    def test_env_selects_backend(self):
        with patch.dict(os.environ, {"PARLEY_STORAGE_BACKEND": "memory"}):
            engine = create_db_engine()
        assert engine.url.get_backend_name() == "sqlite"

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_db_engine(backend="redis")


class TestScopedTransaction:
    @pytest.fixture
    def engine(self):
        engine = create_db_engine(backend="memory")
        init_db(engine)
        return engine

    def test_commits_on_success(self, engine):
        with get_session(engine) as session:
            session.add(User(id="u1", username="alice"))
        with Session(engine) as session:
            assert session.get(User, "u1") is not None

    def test_rolls_back_domain_error(self, engine):
        with pytest.raises(ValidationError):
            with get_session(engine) as session:
                session.add(User(id="u1", username="alice"))
                session.flush()
                raise ValidationError("nope")
        with Session(engine) as session:
            assert session.scalars(select(User)).all() == []

    def test_savepoint_rollback_keeps_outer_work(self, engine):
        with get_session(engine) as session:
            session.add(User(id="u1", username="alice"))
            session.flush()
            with pytest.raises(Exception):
                with session.begin_nested():
                    session.add(User(id="u2", username="alice"))
                    session.flush()
        with Session(engine) as session:
            assert [u.id for u in session.scalars(select(User)).all()] == ["u1"]

    def test_storage_failure_becomes_storage_error(self, engine):
        with pytest.raises(StorageError) as exc_info:
            with get_session(engine, "health_check"):
                raise OperationalError("SELECT 1", {}, Exception("connection lost"))
        assert exc_info.value.operation == "health_check"
        assert exc_info.value.http_status == 503
        assert "connection lost" not in exc_info.value.message


class TestErrorEnvelope:
    def test_validation_error_includes_field(self):
        body = ValidationError("Too long", field="content").to_response()
        assert body == {
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Too long",
                "category": "validation",
                "field": "content",
            }
        }

    def test_not_found_message(self):
        err = NotFoundError("Post", "p9")
        assert err.http_status == 404
        assert err.to_response()["error"]["message"] == "Post 'p9' not found"
        assert "field" not in err.to_response()["error"]
