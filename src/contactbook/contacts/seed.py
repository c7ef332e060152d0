"""
Fixed seed contacts inserted into an empty store at startup.
"""

from contactbook.contacts.models import utcnow
from contactbook.contacts.repository import ContactRepository
from contactbook.contacts.schemas import ContactMethodIn
from contactbook.shared.database import Database
from contactbook.shared.logging import get_logger

logger = get_logger(__name__)

SEED_CONTACTS: list[dict] = [
    {
        "id": "test-001",
        "name": "张三",
        "notes": "公司同事",
        "bookmarked": True,
        "methods": [("手机号码", "13800138000"), ("邮箱地址", "zhangsan@example.com")],
    },
    {
        "id": "test-002",
        "name": "李四",
        "notes": "大学同学",
        "bookmarked": False,
        "methods": [("手机号码", "13900139000"), ("联系地址", "北京市朝阳区")],
    },
    {
        "id": "test-003",
        "name": "王五",
        "notes": "合作伙伴",
        "bookmarked": True,
        "methods": [("邮箱地址", "wangwu@example.com"), ("社交账号", "wangwu_wechat")],
    },
]


async def seed_contacts(database: Database) -> int:
    """Insert the seed contacts if the contacts table is empty.

    Returns:
        Number of contacts inserted (0 when the store already had data).
    """
    async with database.connect() as conn:
        repo = ContactRepository(conn)
        existing = await repo.count_all()
        if existing:
            logger.info("Seed skipped", extra={"existing_contacts": existing})
            return 0

        now = utcnow()
        async with conn.transaction():
            for contact in SEED_CONTACTS:
                await repo.insert(
                    contact_id=contact["id"],
                    name=contact["name"],
                    notes=contact["notes"],
                    bookmarked=contact["bookmarked"],
                    created_at=now,
                    updated_at=now,
                )
                await repo.insert_methods(
                    contact["id"],
                    [ContactMethodIn(type=t, value=v) for t, v in contact["methods"]],
                )

    logger.info("Seed contacts inserted", extra={"count": len(SEED_CONTACTS)})
    return len(SEED_CONTACTS)
