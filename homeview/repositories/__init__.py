from homeview.repositories.viewing_repository import ViewingRepository

__all__ = ["ViewingRepository"]
