import pytest

from jobqueue.v1.core.exceptions import HandlerNotFoundError
from jobqueue.v1.core.registries import HandlerRegistry, Registry


def send_email(job):
    return {"sent": True}


def test_registry_basic_operations():
    """Test basic registry register, get, list operations."""
    registry = Registry[str]("Test")

    # Test empty registry
    assert registry.list() == []

    # Test register and get
    registry.register("test_impl", "test_value")
    assert registry.get("test_impl") == "test_value"
    assert registry.list() == ["test_impl"]
    assert "test_impl" in registry

    # Test KeyError for missing implementation
    with pytest.raises(KeyError, match="No test implementation registered"):
        registry.get("nonexistent")


def test_registry_overwrites_implementation():
    """Test that registering the same name overwrites previous implementation."""
    registry = Registry[str]("Test")

    registry.register("same_name", "first_value")
    registry.register("same_name", "second_value")

    assert registry.get("same_name") == "second_value"
    assert registry.list() == ["same_name"]  # Only one entry


def test_frozen_registry_rejects_registration():
    registry = Registry[str]("Test")
    registry.register("existing", "value")
    registry.freeze()

    assert registry.is_frozen()
    with pytest.raises(RuntimeError, match="registry is frozen"):
        registry.register("new", "value")

    # Lookups still work
    assert registry.get("existing") == "value"


def test_handler_registry_lookup():
    registry = HandlerRegistry()
    registry.register("email.send", send_email)

    assert registry.get("email.send") is send_email
    assert "email.send" in registry


def test_handler_registry_missing_type():
    """Missing handlers raise a typed error naming the job type."""
    registry = HandlerRegistry()

    with pytest.raises(HandlerNotFoundError) as exc_info:
        registry.get("sms.send")

    assert exc_info.value.job_type == "sms.send"
    assert exc_info.value.message == "No handler registered for job type: sms.send"
