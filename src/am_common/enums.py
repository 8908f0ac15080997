"""Global enums - must match DB CHECK constraints exactly."""

from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class AuctionStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BidStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Platform(str, Enum):
    IOS = "iOS"
    ANDROID = "Android"
    WEB = "Web"
    CROSS_PLATFORM = "Cross-Platform"
    DESKTOP = "Desktop"
    OTHER = "Other"


class AuctionCategory(str, Enum):
    PRODUCTIVITY = "Productivity"
    ENTERTAINMENT = "Entertainment"
    SOCIAL = "Social"
    BUSINESS = "Business"
    EDUCATION = "Education"
    HEALTH = "Health"
    FINANCE = "Finance"
    GAMING = "Gaming"
    UTILITY = "Utility"
    OTHER = "Other"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class AppStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AppCategory(str, Enum):
    PRODUCTIVITY = "Productivity"
    ENTERTAINMENT = "Entertainment"
    EDUCATION = "Education"
    HEALTH_FITNESS = "Health & Fitness"
    SOCIAL_MEDIA = "Social Media"
    GAMING = "Gaming"
    BUSINESS = "Business"
    LIFESTYLE = "Lifestyle"
    TRAVEL = "Travel"
    MUSIC = "Music"
    PHOTO_VIDEO = "Photo & Video"
    UTILITIES = "Utilities"
    FINANCE = "Finance"
    NEWS = "News"
    WEATHER = "Weather"
    OTHER = "Other"
