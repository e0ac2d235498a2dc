"""Nox sessions for the death roll bot."""

import nox

nox.options.sessions = ["tests", "lint"]
PYTHON = "3.11"
COVERAGE_ARGS = (
    "--cov=deathroll_bot",
    "--cov=deathrollbot",
    "--cov-report=term-missing",
)


@nox.session(python=PYTHON)
def tests(session):
    """Run the test suite with coverage."""
    session.install("-e", ".[dev]")
    session.run(
        "pytest",
        *COVERAGE_ARGS,
        "--cov-report=xml:coverage.xml",
        "--cov-fail-under=80",
        *session.posargs,
    )


@nox.session(python=PYTHON)
def lint(session):
    """Run ruff checks without rewriting files."""
    session.install("ruff>=0.1.0")
    session.run("ruff", "check", ".")
    session.run("ruff", "format", "--check", ".")


@nox.session(python=PYTHON)
def format_code(session):
    session.install("ruff>=0.1.0")
    session.run("ruff", "format", ".")
    session.run("ruff", "check", "--fix", ".")


@nox.session(python=PYTHON)
def test_single(session):
    """Run a single test file or test function."""
    if not session.posargs:
        session.error("Please provide a test file or function to run")
    session.install("-e", ".[dev]")
    session.run("pytest", "-v", *session.posargs)
