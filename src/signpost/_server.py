"""Granian launcher for routers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer

if TYPE_CHECKING:
    from signpost.routing import Router


def serve(
    app: Router | str,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    dev: bool = False,
    reload: bool | None = None,
    workers: int = 1,
    log_level: str = "info",
    log_access: bool = False,
    granian_kwargs: dict[str, Any] | None = None,
) -> None:
    """Serve a router with Granian.

    Parameters
    ----------
    app:
        A :class:`Router` defined at module level in ``__main__``, or a
        ``"module:var"`` import path naming one.
    dev:
        Turns on debug logs and access logs, and reload unless *reload*
        says otherwise.
    """
    from granian import Granian

    if isinstance(app, str):
        target, router = app, None
    else:
        target, router = resolve_target(app), app

    reload = dev if reload is None else reload
    if dev:
        log_level, log_access = "debug", True

    for label, value in _summary(target, router, host=host, port=port, workers=workers, reload=reload):
        typer.echo(f"{typer.style(f'{label:<10}', fg=typer.colors.GREEN)} {value}")

    Granian(
        target=target,
        address=host,
        port=port,
        interface="asgi",
        workers=workers,
        reload=reload,
        log_level=log_level,
        log_access=log_access,
        **(granian_kwargs or {}),
    ).serve()


def _summary(
    target: str,
    router: Router | None,
    *,
    host: str,
    port: int,
    workers: int,
    reload: bool,
) -> list[tuple[str, str]]:
    lines = [("router", target), ("listen", f"http://{host}:{port}")]
    if router is not None:
        tiers = ", ".join(f"{method} {len(routes)}" for method, routes in router.routes.items())
        lines.append(("routes", f"{router.route_count()} ({tiers})" if tiers else "0"))
        lines.append(("host", router.host or "*"))
    lines.append(("workers", str(workers)))
    lines.append(("reload", "on" if reload else "off"))
    return lines


def resolve_target(router: Router) -> str:
    """Find the ``"module:var"`` path under which ``__main__`` holds *router*.

    Granian imports its target in every worker, so the router has to be
    reachable by name.
    """
    main = sys.modules.get("__main__")
    var_name = next((name for name, val in vars(main).items() if val is router), None) if main else None
    if var_name is None:
        msg = "Router is not a module-level variable of __main__; run it with `signpost run module:var`."
        raise RuntimeError(msg)

    spec = getattr(main, "__spec__", None)
    if spec is not None and spec.name:
        return f"{spec.name}:{var_name}"
    return f"{Path(main.__file__).stem}:{var_name}"
