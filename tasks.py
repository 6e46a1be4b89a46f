# type: ignore
from invoke import task


@task
def venv(ctx):
    """Create .venv and install aquasweeper with its test extras."""
    ctx.run("uv sync --extra test")


@task
def lint(ctx):
    """Static checks: ruff for style, mypy for types."""
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src tests", pty=True)
    ctx.run("mypy src", pty=True)


@task
def fmt(ctx):
    ctx.run("ruff format src tests", pty=True)
    ctx.run("ruff check --fix src tests", pty=True)


@task(help={"k": "Only run tests matching this expression"})
def test(ctx, k=None):
    """
    Run tests with coverage information.
    """
    select = f" -k {k!r}" if k else ""
    ctx.run(f"pytest --cov=src --cov-report=term-missing{select}", pty=True)


@task
def build_package(ctx):
    ctx.run("rm -rf dist")
    ctx.run("uv build")
