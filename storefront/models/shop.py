"""
storefront/models/shop.py

Purpose: Shop-wide settings document

- Contact details, support and about texts, working hours
- A single document; defaults apply until staff edit it
"""

from datetime import datetime

from pydantic import BaseModel, Field

from storefront.models.user import utcnow

DEFAULT_PHONE = "+1 (000) 000-00-00"
DEFAULT_EMAIL = "info@example.com"
DEFAULT_WEBSITE = "www.example.com"
DEFAULT_SUPPORT_INFO = "Our support team answers every day. Write to us or call and we will help."
DEFAULT_ABOUT_INFO = "We are an online shop. Browse the catalog and order right here in the chat."
DEFAULT_WORKING_HOURS = "Mon-Fri 9:00-20:00\nSat-Sun 10:00-18:00"


class ShopSettings(BaseModel):
    phone: str = DEFAULT_PHONE
    email: str = DEFAULT_EMAIL
    website: str = DEFAULT_WEBSITE
    support_info: str = DEFAULT_SUPPORT_INFO
    about_info: str = DEFAULT_ABOUT_INFO
    working_hours: str = DEFAULT_WORKING_HOURS
    updated_at: datetime = Field(default_factory=utcnow)
