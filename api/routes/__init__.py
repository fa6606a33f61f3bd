"""
API Routes Package

This module consolidates all API routes for the Square payment gateway.
"""

from fastapi import APIRouter

from . import payments

# Create main router
router = APIRouter()

router.include_router(payments.router)

# Export for use in main application
__all__ = ["router"]
