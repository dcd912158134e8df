"""
Resource router table.

Resource handlers live outside this service; they are handed to the
topology builder as plain ``APIRouter`` instances. Anything not supplied is
mounted as an empty router and therefore answers 404.
"""

from dataclasses import dataclass, field
from typing import Optional

from fastapi import APIRouter


@dataclass
class RouterTable:
    block: APIRouter = field(default_factory=APIRouter)
    transaction: APIRouter = field(default_factory=APIRouter)
    staking_transaction: APIRouter = field(default_factory=APIRouter)
    address: APIRouter = field(default_factory=APIRouter)
    internal_transaction: APIRouter = field(default_factory=APIRouter)
    signature: APIRouter = field(default_factory=APIRouter)
    logs: APIRouter = field(default_factory=APIRouter)
    price: APIRouter = field(default_factory=APIRouter)
    erc20: APIRouter = field(default_factory=APIRouter)
    erc721: APIRouter = field(default_factory=APIRouter)
    erc1155: APIRouter = field(default_factory=APIRouter)
    rpc: APIRouter = field(default_factory=APIRouter)
    # Core-owned defaults are filled in by the app factory when left unset
    metrics: Optional[APIRouter] = None
    api: Optional[APIRouter] = None
    admin: Optional[APIRouter] = None
