from enum import Enum


class UserRole(str, Enum):
    """Роли пользователей"""
    USER = "user"
    PARTNER = "partner"
    ADMIN = "admin"


class EstablishmentStatus(str, Enum):
    """Статусы заведения в процессе модерации"""
    DRAFT = "draft"
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"


class ModerationAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class City(str, Enum):
    """Города Беларуси, в которых работает каталог"""
    MINSK = "Минск"
    GRODNO = "Гродно"
    BREST = "Брест"
    GOMEL = "Гомель"
    VITEBSK = "Витебск"
    MOGILEV = "Могилев"
    BOBRUISK = "Бобруйск"


class Category(str, Enum):
    """Категории заведений"""
    RESTAURANT = "Ресторан"
    COFFEE_SHOP = "Кофейня"
    FAST_FOOD = "Фаст-фуд"
    BAR = "Бар"
    CONFECTIONERY = "Кондитерская"
    PIZZERIA = "Пиццерия"
    BAKERY = "Пекарня"
    PUB = "Паб"
    CANTEEN = "Столовая"
    HOOKAH = "Кальян"
    BOWLING = "Боулинг"
    KARAOKE = "Караоке"
    BILLIARDS = "Бильярд"


class Cuisine(str, Enum):
    """Типы кухни"""
    NATIONAL = "Народная"
    AUTHOR = "Авторская"
    ASIAN = "Азиатская"
    AMERICAN = "Американская"
    VEGETARIAN = "Вегетарианская"
    JAPANESE = "Японская"
    GEORGIAN = "Грузинская"
    ITALIAN = "Итальянская"
    MIXED = "Смешанная"
    CONTINENTAL = "Континентальная"
    EUROPEAN = "Европейская"


class PriceRange(str, Enum):
    LOW = "$"
    MEDIUM = "$$"
    HIGH = "$$$"


class MediaType(str, Enum):
    INTERIOR = "interior"
    MENU = "menu"


class AuditAction(str, Enum):
    """Действия администратора, попадающие в audit_log"""
    MODERATE_APPROVE = "moderate_approve"
    MODERATE_REJECT = "moderate_reject"
    SUSPEND_ESTABLISHMENT = "suspend_establishment"
    UNSUSPEND_ESTABLISHMENT = "unsuspend_establishment"
    ARCHIVE_ESTABLISHMENT = "archive_establishment"
    ADMIN_UPDATE_COORDINATES = "admin_update_coordinates"
    REVIEW_HIDE = "review_hide"
    REVIEW_SHOW = "review_show"
    REVIEW_DELETE = "review_delete"
    AGGREGATES_RECALCULATE = "aggregates_recalculate"


class EntityType(str, Enum):
    ESTABLISHMENT = "establishment"
    REVIEW = "review"
