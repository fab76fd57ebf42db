from dependency_injector import containers, providers

from ledgerapi.database.session import get_db
from ledgerapi.services.user_service import UserService
from ledgerapi.services.point_service import PointService
from ledgerapi.services.shop_service import ShopService
from ledgerapi.services.game_service import GameService
from ledgerapi.services.raffle_service import RaffleService
from ledgerapi.services.activity_service import ActivityService
from ledgerapi.config import Settings


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class RepositoryModule(containers.DeclarativeContainer):
    """Database session."""

    get_db = providers.Resource(get_db)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    repositories = providers.DependenciesContainer()

    user_service = providers.Factory(UserService, db=repositories.get_db)
    point_service = providers.Factory(PointService, db=repositories.get_db)
    shop_service = providers.Factory(ShopService, db=repositories.get_db)
    game_service = providers.Factory(GameService, db=repositories.get_db)
    raffle_service = providers.Factory(RaffleService, db=repositories.get_db)
    activity_service = providers.Factory(ActivityService, db=repositories.get_db)


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "ledgerapi.routers.point_router",
            "ledgerapi.routers.shop_router",
            "ledgerapi.routers.game_router",
            "ledgerapi.routers.raffle_router",
        ],
    )

    config = providers.Container(ConfigModule)
    repositories = providers.Container(RepositoryModule)
    services = providers.Container(
        ServiceModule, config=config, repositories=repositories
    )
