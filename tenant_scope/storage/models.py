# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.

"""
ORM Models — reference tenant table.

Host applications usually bring their own tenant model; ``Account`` is the
default target of TENANT_TABLE="accounts" and is what the test-suite uses.
Scoped tables reference it through their ownership column (account_id).
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, Integer, String

from tenant_scope.storage.database import Base


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(256), nullable=False)
    domain = Column(String(255), nullable=False, unique=True, index=True)
    active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<Account {self.id} domain={self.domain}>"
