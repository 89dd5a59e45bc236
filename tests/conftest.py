"""Shared fixtures: every test starts with fresh singletons."""

import pytest

from certreg.audit import reset_audit_logger
from certreg.registry.content.cache import reset_content_cache
from certreg.registry.content.resolver import reset_content_resolver
from certreg.registry.content.store import reset_content_store
from certreg.registry.ledger.gateway import reset_ledger_gateway

from fakes import (
    INSTITUTE_KEY,
    OTHER_INSTITUTE_KEY,
    OWNER_KEY,
    STUDENT_KEY,
    build_content,
    build_ledger,
    session_for,
)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset singletons before and after each test."""
    reset_content_cache()
    reset_content_resolver()
    reset_content_store()
    reset_ledger_gateway()
    reset_audit_logger()
    yield
    reset_content_cache()
    reset_content_resolver()
    reset_content_store()
    reset_ledger_gateway()
    reset_audit_logger()


@pytest.fixture
def ledger():
    """(gateway, registry fake, credential ledger fake)."""
    return build_ledger()


@pytest.fixture
def content():
    """(store, resolver) sharing one blob dict."""
    return build_content()


@pytest.fixture
def owner():
    return session_for(OWNER_KEY)


@pytest.fixture
def institute():
    return session_for(INSTITUTE_KEY)


@pytest.fixture
def other_institute():
    return session_for(OTHER_INSTITUTE_KEY)


@pytest.fixture
def student():
    return session_for(STUDENT_KEY)
