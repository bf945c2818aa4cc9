"""Cairn rich error messages.

Every error shown to the user states what went wrong and the exact action
that fixes it.

Usage:
    from cairn.cli.errors import err_no_api_key
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from cairn.rag.llm_client import api_key_env


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = api_key_env(provider.lower()) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_config(message: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration: {message}\n"
        "  Fix ~/.cairn/config.yaml or ./cairn.yaml and retry."
    )


def err_not_a_codebase(path: str) -> str:
    return (
        f"[red]Error:[/] No codebase detected at '{path}'.\n"
        "  Looked for a manifest (package.json, Cargo.toml, pyproject.toml, go.mod, ...)\n"
        "  or a .git directory. Point at the project root, or run:\n"
        f"    cairn project scan {path}"
    )


def err_project_not_found(project_id: str) -> str:
    return (
        f"[yellow]Project not found:[/] '{project_id}'.\n"
        "  Run:  cairn project list  to see indexed projects."
    )


def err_document_not_found(document_id: str) -> str:
    return (
        f"[yellow]Document not found:[/] '{document_id}'.\n"
        "  Run:  cairn status  to see ingested documents."
    )


def err_persistence(message: str) -> str:
    return (
        f"[red]Error:[/] The vector store rejected the write: {message}\n"
        "  Nothing was stored. Check the embedding model settings and retry."
    )


def err_no_sources() -> str:
    return (
        "[red]Error:[/] No files to ingest.\n"
        "  Pass one or more files or directories, e.g.:  cairn ingest notes/ --recursive"
    )


def err_remove_target() -> str:
    return (
        "[red]Error:[/] Nothing to remove.\n"
        "  Use  cairn remove --id <document-id>  or  cairn remove --all"
    )


def err_search_partial(kind: str, message: str) -> str:
    return f"[yellow]Warning:[/] {kind} search failed: {message}"
