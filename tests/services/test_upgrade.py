"""Tests for UpgradeService — pending revisions and migration."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from sqlalchemy import text

from sharegraph.infrastructure.database.migrations import alembic_config
from sharegraph.infrastructure.store import Store
from sharegraph.services.upgrade import UpgradeService

# ---------------------------------------------------------------------------
# pending()
# ---------------------------------------------------------------------------


class TestCheckPending:
    def test_fresh_database_is_at_head(self, store: Store) -> None:
        """A newly created database is stamped, so nothing is pending."""
        result = UpgradeService(store).pending()
        assert result.ok
        assert result.data["pending_count"] == 0
        assert result.data["current"] == result.data["head"]

    def test_reports_head_revision(self, store: Store) -> None:
        result = UpgradeService(store).pending()
        assert result.data["head"] == "001_baseline"

    def test_unstamped_database(self, store: Store) -> None:
        """Tables created before version tracking show the baseline as pending."""
        with store.engine.begin() as conn:
            conn.execute(text("DELETE FROM alembic_version"))
        result = UpgradeService(store).pending()
        assert result.ok
        assert result.data["current"] is None
        assert result.data["pending_count"] == 1
        assert result.data["pending"][0]["revision"] == "001_baseline"


# ---------------------------------------------------------------------------
# apply()
# ---------------------------------------------------------------------------


class TestApply:
    def test_already_current(self, store: Store) -> None:
        result = UpgradeService(store).apply()
        assert result.ok
        assert result.data["applied_count"] == 0
        assert "already up to date" in result.data["message"].lower()

    def test_stamps_legacy_database_with_backup(self, store: Store) -> None:
        with store.engine.begin() as conn:
            conn.execute(text("DELETE FROM alembic_version"))

        result = UpgradeService(store).apply()
        assert result.ok
        assert result.data["applied_count"] == 1
        assert result.data["current"] == "001_baseline"
        assert Path(result.data["backup_path"]).exists()
        assert UpgradeService(store).pending().data["pending_count"] == 0

    def test_upgrade_after_downgrade(self, store: Store) -> None:
        command.downgrade(alembic_config(store.root), "base")
        result = UpgradeService(store).apply()
        assert result.ok
        assert result.data["applied_count"] == 1
        assert UpgradeService(store).pending().data["current"] == "001_baseline"
