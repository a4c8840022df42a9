"""Invoke tasks for testing, linting, and formatting.

Run tasks with: invoke TASK_NAME

Test Examples:
    invoke test              # Unit and integration tests (no network)
    invoke test.unit         # Unit tests only
    invoke test.live         # Query live public registries
    invoke test.coverage     # Coverage report for the regwatch package

Linting Examples:
    invoke lint.flake8      # Check code style with flake8
    invoke lint.black       # Format code with black
"""

from invoke import Collection, task

COV = "--cov=regwatch"


@task(help={"verbose": "Show verbose output"})
def test(ctx, verbose=False):
    """Run all offline tests (live registry tests are skipped)."""
    cmd = "uv run pytest"
    if verbose:
        cmd += " -v"
    ctx.run(cmd)


@task
def unit(ctx):
    """Run unit tests only."""
    ctx.run("uv run pytest tests/unit")


@task
def integration(ctx):
    """Run fake-registry integration tests only."""
    ctx.run("uv run pytest tests/integration")


@task
def live(ctx):
    """Fetch manifests from Docker Hub, ghcr.io and public.ecr.aws."""
    ctx.run("uv run python -m tests.runners.util_registry")


@task(help={"file": "Specific test file to run", "name": "Test name or pattern"})
def specific(ctx, file=None, name=None):
    """Run specific test file, class, or function.

    Examples:
        invoke test.specific --file tests/unit/test_token_cache.py
        invoke test.specific --file tests/unit/test_token_cache.py --name TestRefresh
    """
    if not file and not name:
        print("Error: Please specify --file and/or --name")
        return

    cmd = "uv run pytest"
    if file:
        cmd += f" {file}"
    if name:
        cmd += f"::{name}" if file else f" -k {name}"

    ctx.run(cmd)


@task
def coverage(ctx):
    """Generate HTML and terminal coverage reports."""
    ctx.run(f"uv run pytest {COV} --cov-report=html --cov-report=term-missing")
    print("\n✓ Coverage report generated in htmlcov/index.html")


@task
def ci(ctx):
    """Run all tests as if in CI (with XML coverage)."""
    ctx.run(f"uv run pytest {COV} --cov-report=xml")


@task
def debug_logs(ctx):
    """Run tests with debug-level logging."""
    ctx.run("uv run pytest --log-cli-level=DEBUG")


@task(help={"src": "Path to check (default: src)"})
def flake8(ctx, src="src"):
    """Run flake8 style checker."""
    ctx.run(f"uv run flake8 {src}")


@task(help={"check": "Check only, don't modify files"})
def black(ctx, check=False):
    """Format code with black."""
    cmd = "uv run black src tests main.py tasks.py"
    if check:
        cmd += " --check"
    ctx.run(cmd)


test_ns = Collection("test")
test_ns.add_task(test, default=True)
test_ns.add_task(unit)
test_ns.add_task(integration)
test_ns.add_task(live)
test_ns.add_task(specific)
test_ns.add_task(coverage)
test_ns.add_task(ci)
test_ns.add_task(debug_logs)

lint_ns = Collection("lint")
lint_ns.add_task(flake8)
lint_ns.add_task(black)

ns = Collection(test_ns, lint_ns)
