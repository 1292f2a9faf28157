"""Shared fixtures for ProofAge tests."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from proofage.config import Settings
from proofage.models.merchant import Merchant
from proofage.services.api_key import MerchantContext
from tests.helpers import SIGNING_KEY, VERIFIER_SECRET, make_context


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Test settings with strong secrets and bootstrap disabled."""
    return Settings(
        database={"url": "sqlite+aiosqlite:///:memory:"},
        security={
            "jwt_signing_key": SIGNING_KEY,
            "verifier_callback_secret": VERIFIER_SECRET,
        },
        bootstrap={"enabled": False, "data_dir": str(tmp_path)},
    )


@pytest.fixture
async def db_session():
    """Create in-memory SQLite database and session."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async_session_factory = sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_factory() as session:
        yield session

    await engine.dispose()


async def _create_merchant(db_session: AsyncSession, external_ref: str) -> Merchant:
    merchant = Merchant(
        id=f"mer_{uuid.uuid4().hex}",
        external_ref=external_ref,
        name=external_ref.replace("_", " ").title(),
    )
    db_session.add(merchant)
    await db_session.commit()
    return merchant


@pytest.fixture
async def merchant(db_session: AsyncSession) -> Merchant:
    return await _create_merchant(db_session, "merchant_demo")


@pytest.fixture
async def other_merchant(db_session: AsyncSession) -> Merchant:
    return await _create_merchant(db_session, "merchant_other")


@pytest.fixture
def merchant_ctx(merchant: Merchant) -> MerchantContext:
    return make_context(merchant)


@pytest.fixture
def other_merchant_ctx(other_merchant: Merchant) -> MerchantContext:
    return make_context(other_merchant, api_key_id="ak_other")
