"""Tests for promptvault.lifecycle — setup, credential replacement and reset."""

import pytest

from promptvault import lifecycle
from promptvault.errors import (
    CredentialInvalid,
    DecryptionFailure,
    ErrorKind,
    NetworkFailure,
    VaultNotInitialized,
)
from promptvault.vault.crypto import decrypt, verify_pin


class TestSetupVault:
    @pytest.mark.asyncio
    async def test_online_setup(self, storage, remote, pin, token):
        result = await lifecycle.setup_vault(storage, remote, pin, token)

        assert result.online is True
        assert result.identity == "octocat"
        assert result.remote_handle is None
        assert verify_pin(pin, storage.pin_verifier)
        assert decrypt(storage.encrypted_credential, pin) == token
        assert storage.identity_label == "octocat"
        assert lifecycle.is_initialized(storage)

    @pytest.mark.asyncio
    async def test_finds_existing_blob(self, storage, remote, pin, token, make_dataset):
        handle = remote.seed(make_dataset(2))
        result = await lifecycle.setup_vault(storage, remote, pin, token)
        assert result.remote_handle == handle
        assert storage.remote_handle == handle

    @pytest.mark.asyncio
    async def test_offline_setup(self, storage, remote, pin):
        result = await lifecycle.setup_vault(storage, remote, pin)
        assert result.online is False
        assert storage.encrypted_credential is None
        assert remote.calls == []
        assert lifecycle.is_initialized(storage)

    @pytest.mark.asyncio
    async def test_short_pin(self, storage, remote):
        with pytest.raises(ValueError, match="at least 4"):
            await lifecycle.setup_vault(storage, remote, "123")
        assert not lifecycle.is_initialized(storage)

    @pytest.mark.asyncio
    async def test_rejected_token_writes_nothing(self, storage, remote, pin):
        with pytest.raises(CredentialInvalid):
            await lifecycle.setup_vault(storage, remote, pin, "ghp_bogus")
        assert storage.pin_verifier is None

    @pytest.mark.asyncio
    async def test_unreachable_remote(self, storage, remote, pin, token):
        remote.fail["validate_credential"] = ErrorKind.NETWORK
        with pytest.raises(NetworkFailure):
            await lifecycle.setup_vault(storage, remote, pin, token)

    @pytest.mark.asyncio
    async def test_locate_failure_is_not_fatal(self, storage, remote, pin, token):
        remote.fail["locate"] = ErrorKind.NETWORK
        result = await lifecycle.setup_vault(storage, remote, pin, token)
        assert result.online is True
        assert storage.remote_handle is None

    @pytest.mark.asyncio
    async def test_replaces_old_vault_leftovers(self, online_storage, remote, token):
        online_storage.encrypted_cache = "old-envelope"
        online_storage.remote_handle = "old"
        await lifecycle.setup_vault(online_storage, remote, "5678", token)
        assert online_storage.encrypted_cache is None
        assert online_storage.remote_handle is None
        assert await lifecycle.check_pin(online_storage, "5678")


class TestCheckPin:
    @pytest.mark.asyncio
    async def test_check(self, offline_storage, pin):
        assert await lifecycle.check_pin(offline_storage, pin) is True
        assert await lifecycle.check_pin(offline_storage, "0000") is False

    @pytest.mark.asyncio
    async def test_no_vault(self, storage, pin):
        assert await lifecycle.check_pin(storage, pin) is False


class TestUpdateCredential:
    @pytest.mark.asyncio
    async def test_update(self, offline_storage, remote, pin, token):
        assert await lifecycle.update_credential(offline_storage, remote, pin, token) == "octocat"
        assert decrypt(offline_storage.encrypted_credential, pin) == token

    @pytest.mark.asyncio
    async def test_wrong_pin(self, offline_storage, remote, token):
        with pytest.raises(DecryptionFailure):
            await lifecycle.update_credential(offline_storage, remote, "0000", token)

    @pytest.mark.asyncio
    async def test_not_initialized(self, storage, remote, pin, token):
        with pytest.raises(VaultNotInitialized):
            await lifecycle.update_credential(storage, remote, pin, token)

    @pytest.mark.asyncio
    async def test_other_account_forgets_handle(self, online_storage, remote, pin):
        online_storage.remote_handle = "gist-of-octocat"
        remote.tokens["ghp_other"] = "hubot"
        assert await lifecycle.update_credential(online_storage, remote, pin, "ghp_other") == "hubot"
        assert online_storage.remote_handle is None
        assert online_storage.identity_label == "hubot"

    @pytest.mark.asyncio
    async def test_failed_encryption_leaves_account_untouched(
        self, online_storage, remote, pin, monkeypatch
    ):
        online_storage.remote_handle = "gist-of-octocat"
        remote.tokens["ghp_other"] = "hubot"

        async def broken(*args):
            raise RuntimeError("no entropy")

        monkeypatch.setattr(lifecycle, "encrypt_async", broken)
        with pytest.raises(RuntimeError):
            await lifecycle.update_credential(online_storage, remote, pin, "ghp_other")
        assert online_storage.remote_handle == "gist-of-octocat"
        assert online_storage.identity_label == "octocat"


class TestResetVault:
    def test_reset(self, online_storage):
        online_storage.remote_handle = "gist1"
        lifecycle.reset_vault(online_storage)
        assert not lifecycle.is_initialized(online_storage)
        assert online_storage.store.data == {}
