"""Service wiring for route handlers. Tests swap these through app.dependency_overrides."""
from __future__ import annotations

from typing import Optional

from fastapi import Depends

from standings.services.admin import AdminService
from standings.services.ingestion import ResultIngestionService, UnmatchedPolicy
from standings.services.profile_api import ProfileAPIService
from standings.services.standings import StandingsService
from standings.storage import StorageAdapter, create_storage

_storage: Optional[StorageAdapter] = None
_profiles: Optional[ProfileAPIService] = None


def get_storage() -> StorageAdapter:
    global _storage
    if _storage is None:
        _storage = create_storage()
    return _storage


def get_profile_service() -> ProfileAPIService:
    global _profiles
    if _profiles is None:
        _profiles = ProfileAPIService()
    return _profiles


def get_ingestion_service(
    storage: StorageAdapter = Depends(get_storage),
    profiles: ProfileAPIService = Depends(get_profile_service),
) -> ResultIngestionService:
    return ResultIngestionService(storage, profiles, UnmatchedPolicy.from_config())


def get_admin_service(
    storage: StorageAdapter = Depends(get_storage),
    profiles: ProfileAPIService = Depends(get_profile_service),
) -> AdminService:
    return AdminService(storage, profiles)


def get_standings_service(
    storage: StorageAdapter = Depends(get_storage),
    profiles: ProfileAPIService = Depends(get_profile_service),
) -> StandingsService:
    return StandingsService(storage, profiles)


async def close_services() -> None:
    """Close the profile API client and storage connections."""
    global _storage, _profiles
    if _profiles is not None:
        await _profiles.close()
        _profiles = None
    if _storage is not None:
        await _storage.close()
        _storage = None
