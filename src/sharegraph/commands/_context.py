"""AppContext: the object every sharegraph command receives.

The root group builds one per invocation and passes it down with
``@click.pass_obj``. It owns the store, turns ``--as`` into a user ID
and writes results with the exit-code contract: results on stdout and
exit 0, failures on stderr and exit 1.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import click

from sharegraph.config.logging import bind_actor, configure_logging
from sharegraph.infrastructure.directory import DependencyUnavailableError
from sharegraph.output.formatters import OutputSettings, format_result
from sharegraph.services.result import ErrorCode, ServiceError, ServiceResult
from sharegraph.services.timing import enable_timing

if TYPE_CHECKING:
    from sharegraph.config.settings import ShareGraphSettings
    from sharegraph.infrastructure.store import Store


class AppContext:
    """Per-invocation state shared by the command tree.

    The store opens on first use, so ``--help``, ``--examples`` and
    ``--version`` never touch the database.
    """

    def __init__(self, settings: ShareGraphSettings) -> None:
        self.settings = settings
        self.output = OutputSettings(
            json_output=settings.json_output,
            quiet=settings.quiet,
            verbose=settings.verbose,
        )
        self._store: Store | None = None

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)
        if settings.verbose:
            enable_timing()

    @property
    def store(self) -> Store:
        if self._store is None:
            from sharegraph.infrastructure.store import Store

            store = Store(self.settings)
            store.init_event_bus(sync=self.settings.sync)
            self._store = store
        return self._store

    def resolve_user(self, identifier: str) -> str | None:
        """User ID for an email or ID, or None when nobody matches."""
        try:
            return self.store.identity.resolve(identifier)
        except DependencyUnavailableError as exc:
            self.fail("resolve_user", ErrorCode.UNAVAILABLE, str(exc))

    def actor(self) -> str:
        """The acting user's ID.

        The identifier comes from ``--as`` or ``SHAREGRAPH_ACTOR``.
        Services never look it up themselves; they receive the ID.
        """
        identifier = self.settings.actor
        if not identifier:
            raise click.UsageError("This command needs an acting user: pass --as USER.")
        user_id = self.resolve_user(identifier)
        if user_id is None:
            self.fail(
                "resolve_user", ErrorCode.NOT_FOUND, f"No user found for --as {identifier!r}"
            )
        bind_actor(user_id)
        return user_id

    def fail(self, op: str, code: ErrorCode, message: str) -> NoReturn:
        self._abort(ServiceResult(ok=False, op=op, error=ServiceError(code=code, message=message)))

    def emit(self, result: ServiceResult) -> None:
        """Write *result*; exit 1 when it failed.

        Warnings go to stderr as ``WARNING:`` lines except in JSON mode,
        where they are already part of the payload.
        """
        if not result.ok:
            self._abort(result)
        click.echo(format_result(result, settings=self.output))
        if not self.output.json_output:
            for warning in result.warnings:
                click.echo(f"WARNING: {warning}", err=True)

    def _abort(self, result: ServiceResult) -> NoReturn:
        click.echo(format_result(result, settings=self.output), err=True)
        raise SystemExit(1)

    def close(self) -> None:
        """Drain queued plugin calls and release the store."""
        if self._store is not None:
            self._store.close()
            self._store = None
