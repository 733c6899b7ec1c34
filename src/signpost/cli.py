"""signpost command-line interface powered by Typer."""

import importlib
import sys
from pathlib import Path
from typing import Annotated

import typer

from signpost.routing import Route, Router

app = typer.Typer(name="signpost", add_completion=False, no_args_is_help=True)


# ------------------------------------------------------------------
# Target resolution
# ------------------------------------------------------------------


def _import_module(module_name: str, parent: Path | None = None) -> object:
    if parent is not None and str(parent) not in sys.path:
        sys.path.insert(0, str(parent))
    try:
        return importlib.import_module(module_name)
    except Exception as exc:
        typer.echo(f"Error importing {module_name!r}: {exc}", err=True)
        raise typer.Exit(1) from exc


def _resolve_cli_target(path: str) -> str:
    """Turn a CLI *path* argument into a ``"module:var"`` string.

    Accepted forms:
    - ``module:var``   → returned as-is
    - ``file.py``      → imports ``file``, scans for a Router instance
    """
    if ":" in path:
        return path

    file = Path(path)
    if not file.exists():
        typer.echo(f"Error: file {path!r} not found.", err=True)
        raise typer.Exit(1)

    module_name = file.stem
    mod = _import_module(module_name, file.resolve().parent)

    var_name = _find_router_var(mod)
    if var_name is None:
        typer.echo(
            f"Error: no Router instance found in {path!r}. Provide an explicit target, e.g. main:router",
            err=True,
        )
        raise typer.Exit(1)

    return f"{module_name}:{var_name}"


def _find_router_var(mod: object) -> str | None:
    """Scan a module for a ``Router`` instance.

    Checks ``router``, ``app`` and ``application`` first, then falls back to
    any public attribute.
    """
    for name in ("router", "app", "application"):
        if isinstance(getattr(mod, name, None), Router):
            return name

    for name in dir(mod):
        if name.startswith("_"):
            continue
        if isinstance(getattr(mod, name, None), Router):
            return name

    return None


def _load_router(target: str) -> Router:
    module_name, _, var_name = target.partition(":")
    mod = _import_module(module_name, Path.cwd())
    router = getattr(mod, var_name, None)
    if not isinstance(router, Router):
        typer.echo(f"Error: {target!r} is not a Router.", err=True)
        raise typer.Exit(1)
    return router


def _name(handler: object) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


def _describe(route: Route) -> str:
    return f"{route.pattern.source} -> {_name(route.handler)}"


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


@app.command()
def dev(
    path: Annotated[str, typer.Argument(help="Python file or module:var target.")] = "main.py",
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
    reload: Annotated[bool | None, typer.Option("--reload/--no-reload", help="Auto-reload on code changes.")] = None,
) -> None:
    """Start a development server with auto-reload and debug logging."""
    from signpost._server import serve

    target = _resolve_cli_target(path)
    serve(target, host=host, port=port, dev=True, reload=reload)


@app.command()
def run(
    path: Annotated[str, typer.Argument(help="Python file or module:var target.")] = "main.py",
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
    workers: Annotated[int, typer.Option(help="Number of worker processes.")] = 1,
) -> None:
    """Start a production server."""
    from signpost._server import serve

    target = _resolve_cli_target(path)
    serve(target, host=host, port=port, workers=workers)


@app.command()
def routes(
    path: Annotated[str, typer.Argument(help="Python file or module:var target.")] = "main.py",
) -> None:
    """Print the route table in the order requests are matched."""
    router = _load_router(_resolve_cli_target(path))

    typer.echo(f"host       {router.host or '*'}")
    for method in [m for m in router.routes if m != "ANY"] + ["ANY"]:
        for route in router.routes.get(method, ()):
            typer.echo(f"{method:<10} {_describe(route)}")
    typer.echo(f"fallback   {_name(router.not_found)}")
