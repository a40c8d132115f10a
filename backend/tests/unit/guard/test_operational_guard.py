"""Tests for the safe-mode operational guard"""

import pytest

from guard.operational_guard import (
    DESTRUCTIVE_OPERATIONS,
    FORBIDDEN_MESSAGE,
    Operation,
    OperationalGuard,
    OperationForbidden,
    is_destructive,
)

READ_ONLY_OPERATIONS = [op for op in Operation if op not in DESTRUCTIVE_OPERATIONS]


class TestClassification:

    @pytest.mark.parametrize("operation", [
        Operation.CONTAINER_START,
        Operation.CONTAINER_STOP,
        Operation.CONTAINER_RESTART,
        Operation.CONTAINER_KILL,
        Operation.CONTAINER_REMOVE,
        Operation.CONTAINER_CREATE,
        Operation.CONTAINER_PRUNE,
        Operation.IMAGE_REMOVE,
        Operation.IMAGE_PRUNE,
        Operation.VOLUME_CREATE,
        Operation.VOLUME_REMOVE,
        Operation.VOLUME_PRUNE,
        Operation.NETWORK_CREATE,
        Operation.NETWORK_REMOVE,
        Operation.NETWORK_PRUNE,
        Operation.SYSTEM_PRUNE,
    ])
    def test_destructive(self, operation):
        assert is_destructive(operation)

    def test_image_pull_is_exempt(self):
        assert not is_destructive(Operation.IMAGE_PULL)

    def test_reads_are_not_destructive(self):
        assert Operation.CONTAINER_LIST in READ_ONLY_OPERATIONS
        assert Operation.SYSTEM_INFO in READ_ONLY_OPERATIONS
        assert all(op.value.split('.')[1] in ('list', 'inspect', 'pull', 'info', 'df', 'version')
                   for op in READ_ONLY_OPERATIONS)


class TestOperationalGuard:

    def test_safe_mode_off_allows_everything(self):
        guard = OperationalGuard(safe_mode=False)

        for operation in Operation:
            assert guard.check_allowed(operation)
            guard.ensure_allowed(operation)

    def test_safe_mode_on_denies_destructive_operations(self):
        guard = OperationalGuard(safe_mode=True)

        for operation in DESTRUCTIVE_OPERATIONS:
            assert guard.check_allowed(operation) is False

    def test_safe_mode_on_still_allows_pull_and_reads(self):
        guard = OperationalGuard(safe_mode=True)

        assert guard.check_allowed(Operation.IMAGE_PULL)
        for operation in READ_ONLY_OPERATIONS:
            guard.ensure_allowed(operation)

    def test_denial_raises_with_fixed_message(self):
        guard = OperationalGuard(safe_mode=True)

        with pytest.raises(OperationForbidden) as exc_info:
            guard.ensure_allowed(Operation.CONTAINER_REMOVE)

        assert exc_info.value.message == FORBIDDEN_MESSAGE
        assert str(exc_info.value) == "Operation not permitted: safe mode is enabled"
        assert exc_info.value.operation is Operation.CONTAINER_REMOVE

    def test_flag_is_read_only(self):
        guard = OperationalGuard(safe_mode=True)

        with pytest.raises(AttributeError):
            guard.safe_mode = False
