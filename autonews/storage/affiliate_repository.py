"""
Affiliate Repository
====================

Affiliate links and click tracking. A followed link is resolved to its
redirect target and the click is recorded in the same transaction, so an
inactive or missing link never gains a click row.
"""

import sqlite3
from datetime import datetime
from typing import List, Optional

from ..database.models import AffiliateClick, AffiliateLink, to_db_timestamp, utc_now
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode

_LINK_WITH_CLICKS = """
    SELECT l.*, COUNT(c.id) AS click_count
    FROM affiliate_links l
    LEFT JOIN affiliate_clicks c ON c.affiliate_link_id = l.id
"""


class AffiliateRepository:
    """Repository for AffiliateLink and AffiliateClick operations."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("affiliate_repository")

    def create_link(self, link: AffiliateLink) -> int:
        """Create an affiliate link.

        Raises:
            DatabaseError: If creation fails
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO affiliate_links (name, original_url, affiliate_url, network,
                                                 commission_rate, is_active, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        link.name, link.original_url, link.affiliate_url, link.network,
                        link.commission_rate, link.is_active, to_db_timestamp(link.created_at),
                    ),
                )
                conn.commit()
                link_id = cursor.lastrowid

            self.logger.info(f"Created affiliate link {link.name} (id={link_id})")
            return link_id

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create affiliate link: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_link(self, link_id: int) -> Optional[AffiliateLink]:
        row = self.db.execute_one(
            _LINK_WITH_CLICKS + " WHERE l.id = ? GROUP BY l.id", (link_id,)
        )
        return AffiliateLink.from_db_row(row) if row else None

    def list_links(self, active_only: bool = False) -> List[AffiliateLink]:
        """Links with their total click counts, newest first."""
        query = _LINK_WITH_CLICKS
        if active_only:
            query += " WHERE l.is_active = 1"
        query += " GROUP BY l.id ORDER BY l.created_at DESC, l.id DESC"
        return [AffiliateLink.from_db_row(row) for row in self.db.execute_query(query)]

    def set_active(self, link_id: int, active: bool) -> bool:
        updated = self.db.execute_update(
            "UPDATE affiliate_links SET is_active = ? WHERE id = ?",
            (active, link_id),
        )
        if updated:
            self.logger.info(f"Affiliate link {link_id} {'activated' if active else 'deactivated'}")
        return updated > 0

    def delete_link(self, link_id: int) -> bool:
        """Delete a link together with its click history."""
        deleted = self.db.execute_update("DELETE FROM affiliate_links WHERE id = ?", (link_id,))
        return deleted > 0

    def resolve_and_track(
        self,
        link_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None,
        clicked_at: Optional[datetime] = None,
    ) -> Optional[str]:
        """Record a click on an active link and return its redirect target.

        Args:
            link_id: Followed link
            ip_address: Client address (default ``"unknown"``)
            user_agent: Client user agent (default empty)
            referrer: Referring page (default empty)
            clicked_at: Click time (default: now)

        Returns:
            The affiliate URL, or None when the link is missing or inactive

        Raises:
            DatabaseError: If the lookup or the click insert fails
        """
        click = AffiliateClick(
            affiliate_link_id=link_id,
            ip_address=ip_address or "unknown",
            user_agent=user_agent or "",
            referrer=referrer or "",
            clicked_at=clicked_at or utc_now(),
        )
        try:
            with self.db.transaction() as conn:
                row = conn.execute(
                    "SELECT affiliate_url FROM affiliate_links WHERE id = ? AND is_active = 1",
                    (link_id,),
                ).fetchone()
                if row is None:
                    self.logger.info(f"Click on unknown or inactive affiliate link {link_id}")
                    return None

                conn.execute(
                    """
                    INSERT INTO affiliate_clicks (affiliate_link_id, ip_address, user_agent,
                                                  referrer, clicked_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        click.affiliate_link_id, click.ip_address, click.user_agent,
                        click.referrer, to_db_timestamp(click.clicked_at),
                    ),
                )

            self.logger.debug(f"Tracked click on affiliate link {link_id}")
            return row["affiliate_url"]

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to track click on affiliate link {link_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def click_count(self, link_id: int, since: Optional[datetime] = None) -> int:
        query = "SELECT COUNT(*) FROM affiliate_clicks WHERE affiliate_link_id = ?"
        params: tuple = (link_id,)
        if since is not None:
            query += " AND clicked_at >= ?"
            params += (to_db_timestamp(since),)
        return self.db.execute_one(query, params)[0]

    def list_clicks(self, link_id: int, limit: int = 50) -> List[AffiliateClick]:
        rows = self.db.execute_query(
            """
            SELECT * FROM affiliate_clicks
            WHERE affiliate_link_id = ?
            ORDER BY clicked_at DESC, id DESC
            LIMIT ?
            """,
            (link_id, limit),
        )
        return [AffiliateClick.from_db_row(row) for row in rows]

    def top_links(self, since: datetime, limit: int = 10) -> List[AffiliateLink]:
        """Links ranked by clicks received since ``since``; links without any are left out."""
        rows = self.db.execute_query(
            """
            SELECT l.*, COUNT(c.id) AS click_count
            FROM affiliate_links l
            JOIN affiliate_clicks c ON c.affiliate_link_id = l.id
            WHERE c.clicked_at >= ?
            GROUP BY l.id
            ORDER BY click_count DESC, l.id ASC
            LIMIT ?
            """,
            (to_db_timestamp(since), limit),
        )
        return [AffiliateLink.from_db_row(row) for row in rows]
