"""API Key service (credential store).

Handles key generation, hashing, merchant authentication, self-service
key management, and first-boot provisioning.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os
import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import structlog
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from proofage.config import Settings
from proofage.db.session import bounded
from proofage.errors import (
    CannotRevokeCurrentKeyError,
    InvalidApiKeyError,
    MissingApiKeyError,
    NotFoundError,
    StorageTimeoutError,
    ValidationError,
)
from proofage.models.api_key import ApiKey
from proofage.models.merchant import Merchant
from proofage.utils.datetime import utcnow

logger = structlog.get_logger()

# Key format: pkr_{48 hex chars}
_KEY_PREFIX = "pkr_"
_PREVIEW_HEAD = 8
_PREVIEW_TAIL = 4
_LABEL_MIN = 2
_LABEL_MAX = 64
_BOOTSTRAP_KEY_MIN = 16


@dataclass(frozen=True)
class MerchantContext:
    """Identity resolved from an API key for the duration of one call."""

    merchant_id: str
    merchant_external_ref: str
    api_key_id: str
    key_hash: str


@dataclass(frozen=True)
class RevokeOutcome:
    api_key: ApiKey
    already_revoked: bool


class ApiKeyService:
    """Service for API key lifecycle management."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session
        self._log = logger.bind(service="api_key")

    # ---- Pure helpers ----

    @staticmethod
    def generate_key() -> tuple[str, str, str]:
        """Generate a new API key.

        Returns:
            Tuple of (plaintext, key_hash, preview)
        """
        plaintext = f"{_KEY_PREFIX}{secrets.token_hex(24)}"
        return plaintext, ApiKeyService.hash_key(plaintext), ApiKeyService.build_preview(plaintext)

    @staticmethod
    def hash_key(plaintext: str) -> str:
        """Hash a plaintext key using SHA-256.

        Returns:
            SHA-256 hex digest
        """
        return hashlib.sha256(plaintext.encode()).hexdigest()

    @staticmethod
    def build_preview(plaintext: str) -> str:
        """Redacted preview: first and last few characters only."""
        return f"{plaintext[:_PREVIEW_HEAD]}...{plaintext[-_PREVIEW_TAIL:]}"

    @staticmethod
    def verify_key(plaintext: str, key_hash: str) -> bool:
        """Constant-time check of a plaintext key against a stored hash."""
        return hmac.compare_digest(ApiKeyService.hash_key(plaintext), key_hash)

    # ---- Authentication ----

    async def authenticate(self, presented_key: str | None) -> MerchantContext:
        """Resolve a presented API key to its merchant.

        Raises:
            MissingApiKeyError: No key supplied
            InvalidApiKeyError: No active key matches (revoked or unknown)
        """
        if not presented_key:
            raise MissingApiKeyError()

        key_hash = self.hash_key(presented_key)
        result = await bounded(
            self._db.execute(
                select(ApiKey, Merchant)
                .join(Merchant, Merchant.id == ApiKey.merchant_id)
                .where(ApiKey.key_hash == key_hash)
            ),
            operation="api_key.lookup",
        )
        row = result.first()

        if row is None:
            self._log.info("api_key.auth.failed", reason="unknown")
            raise InvalidApiKeyError()

        api_key, merchant = row
        if not api_key.is_active:
            self._log.info("api_key.auth.failed", reason="revoked", api_key_id=api_key.id)
            raise InvalidApiKeyError()

        # Copy plain values out before the touch; its rollback expires loaded rows
        context = MerchantContext(
            merchant_id=merchant.id,
            merchant_external_ref=merchant.external_ref,
            api_key_id=api_key.id,
            key_hash=api_key.key_hash,
        )
        await self._touch_last_used(context.api_key_id)

        self._log.debug(
            "api_key.auth.success",
            merchant_id=context.merchant_id,
            api_key_id=context.api_key_id,
        )
        return context

    async def _touch_last_used(self, api_key_id: str) -> None:
        """Record last use. Failures are logged and never fail authentication."""
        try:
            await bounded(
                self._db.execute(
                    update(ApiKey).where(ApiKey.id == api_key_id).values(last_used_at=utcnow())
                ),
                operation="api_key.touch",
            )
            await bounded(self._db.commit(), operation="api_key.touch")
        except (SQLAlchemyError, StorageTimeoutError) as e:
            self._log.warning("api_key.touch.failed", api_key_id=api_key_id, error=str(e))
            await self._db.rollback()

    # ---- Self-service management ----

    async def issue_key(self, merchant_id: str, label: str = "manual") -> tuple[str, ApiKey]:
        """Create a new key for a merchant.

        The plaintext is returned exactly once and is never stored or logged.

        Returns:
            Tuple of (plaintext, stored record)
        """
        if not (_LABEL_MIN <= len(label) <= _LABEL_MAX):
            raise ValidationError(
                details={"label": f"must be {_LABEL_MIN}-{_LABEL_MAX} characters"}
            )

        plaintext, key_hash, preview = self.generate_key()
        api_key = ApiKey(
            id=f"ak_{uuid.uuid4().hex}",
            merchant_id=merchant_id,
            key_hash=key_hash,
            preview=preview,
            label=label,
        )
        self._db.add(api_key)
        await bounded(self._db.commit(), operation="api_key.create")
        await self._db.refresh(api_key)

        self._log.info(
            "api_key.issued",
            merchant_id=merchant_id,
            api_key_id=api_key.id,
            preview=preview,
        )
        return plaintext, api_key

    async def list_keys(self, merchant_id: str, *, include_revoked: bool = False) -> list[ApiKey]:
        """List a merchant's keys, newest first."""
        query = select(ApiKey).where(ApiKey.merchant_id == merchant_id)
        if not include_revoked:
            query = query.where(ApiKey.revoked_at.is_(None))
        query = query.order_by(ApiKey.created_at.desc(), ApiKey.id.desc())

        result = await bounded(self._db.execute(query), operation="api_key.list")
        return list(result.scalars().all())

    async def revoke_key(
        self,
        merchant_id: str,
        key_id: str,
        *,
        current_key_hash: str,
    ) -> RevokeOutcome:
        """Revoke one of the merchant's keys.

        Idempotent for already-revoked keys. Refuses to revoke the key that
        authenticated the current call.

        Raises:
            NotFoundError: Key unknown or owned by another merchant
            CannotRevokeCurrentKeyError: Target is the caller's own key
        """
        result = await bounded(
            self._db.execute(
                select(ApiKey).where(
                    ApiKey.id == key_id,
                    ApiKey.merchant_id == merchant_id,
                )
            ),
            operation="api_key.get",
        )
        target = result.scalars().first()
        if target is None:
            raise NotFoundError("apiKeyId not found")

        if hmac.compare_digest(current_key_hash, target.key_hash):
            raise CannotRevokeCurrentKeyError()

        if target.revoked_at is not None:
            return RevokeOutcome(api_key=target, already_revoked=True)

        target.revoked_at = utcnow()
        self._db.add(target)
        await bounded(self._db.commit(), operation="api_key.revoke")
        await self._db.refresh(target)

        self._log.info("api_key.revoked", merchant_id=merchant_id, api_key_id=target.id)
        return RevokeOutcome(api_key=target, already_revoked=False)

    # ---- Provisioning ----

    @staticmethod
    async def bootstrap(db: AsyncSession, settings: Settings) -> Merchant | None:
        """Provision the bootstrap merchant and its credential on startup.

        Logic:
        1. Upsert the merchant by external_ref (name is refreshed)
        2. If bootstrap.api_key is configured → seed its hash unless present
           (a revoked bootstrap key stays revoked)
        3. Else if the merchant has an active key → skip
        4. Else generate a key and write credentials.json

        Returns:
            The bootstrap merchant, or None when bootstrap is disabled
        """
        config = settings.bootstrap
        if not config.enabled:
            return None

        result = await db.execute(
            select(Merchant).where(Merchant.external_ref == config.merchant_external_ref)
        )
        merchant = result.scalars().first()
        if merchant is None:
            merchant = Merchant(
                id=f"mer_{uuid.uuid4().hex}",
                external_ref=config.merchant_external_ref,
                name=config.merchant_name,
            )
            db.add(merchant)
            await db.flush()
            logger.info("merchant.bootstrap.created", external_ref=merchant.external_ref)
        elif merchant.name != config.merchant_name:
            merchant.name = config.merchant_name
            merchant.updated_at = utcnow()
            db.add(merchant)
            await db.flush()

        # 2. Configured key
        if config.api_key:
            if len(config.api_key) < _BOOTSTRAP_KEY_MIN:
                raise ValueError(
                    f"bootstrap.api_key must be at least {_BOOTSTRAP_KEY_MIN} characters"
                )

            key_hash = ApiKeyService.hash_key(config.api_key)
            existing = (
                await db.execute(select(ApiKey).where(ApiKey.key_hash == key_hash))
            ).scalars().first()

            if existing is None:
                db.add(
                    ApiKey(
                        id=f"ak_{uuid.uuid4().hex}",
                        merchant_id=merchant.id,
                        key_hash=key_hash,
                        preview=ApiKeyService.build_preview(config.api_key),
                        label="bootstrap",
                    )
                )
                await db.flush()
                logger.info(
                    "api_key.bootstrap.seeded",
                    external_ref=merchant.external_ref,
                    preview=ApiKeyService.build_preview(config.api_key),
                )
            elif existing.merchant_id != merchant.id:
                logger.warning(
                    "api_key.bootstrap.foreign",
                    api_key_id=existing.id,
                    msg="Configured bootstrap key belongs to another merchant",
                )
            elif existing.revoked_at is not None:
                logger.warning(
                    "api_key.bootstrap.revoked",
                    api_key_id=existing.id,
                    msg="Configured bootstrap key was revoked and will not be reactivated",
                )
            return merchant

        # 3. Existing active key
        active = (
            await db.execute(
                select(ApiKey).where(
                    ApiKey.merchant_id == merchant.id,
                    ApiKey.revoked_at.is_(None),
                )
            )
        ).scalars().first()
        if active is not None:
            logger.debug("api_key.bootstrap.skip", reason="active keys exist")
            return merchant

        # 4. First boot
        plaintext, key_hash, preview = ApiKeyService.generate_key()
        db.add(
            ApiKey(
                id=f"ak_{uuid.uuid4().hex}",
                merchant_id=merchant.id,
                key_hash=key_hash,
                preview=preview,
                label="bootstrap",
            )
        )
        await db.flush()

        logger.info(
            "api_key.bootstrap.generated",
            preview=preview,
            msg="First boot: API key generated. See credentials.json for the key.",
        )

        endpoint = f"http://{settings.server.host}:{settings.server.port}"
        ApiKeyService.write_credentials_file(
            Path(config.data_dir),
            plaintext,
            endpoint,
            merchant.external_ref,
        )
        return merchant

    @staticmethod
    def write_credentials_file(
        data_dir: Path,
        api_key: str,
        endpoint: str,
        merchant_external_ref: str,
    ) -> None:
        """Write credentials.json with owner-only permissions."""
        credentials = {
            "api_key": api_key,
            "endpoint": endpoint,
            "merchant_external_ref": merchant_external_ref,
            "generated_at": datetime.now(UTC).isoformat(),
        }

        cred_path = data_dir / "credentials.json"
        data_dir.mkdir(parents=True, exist_ok=True)
        cred_path.write_text(json.dumps(credentials, indent=2) + "\n")

        try:
            os.chmod(cred_path, 0o600)
        except OSError:
            # Windows or restricted environments may not support chmod
            logger.warning(
                "api_key.credentials.chmod_failed",
                path=str(cred_path),
                msg="Could not set file permissions to 0600",
            )

        logger.info("api_key.credentials.written", path=str(cred_path))
