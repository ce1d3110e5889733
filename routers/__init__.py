"""HTTP routes, mounted under ``/api``."""

from fastapi import APIRouter

from routers import admin, listings, mentor, mentor_application, notifications, tickets, users

router = APIRouter(prefix="/api")
router.include_router(admin.router)
router.include_router(mentor.router)
router.include_router(mentor_application.router)
router.include_router(tickets.router)
router.include_router(notifications.router)
router.include_router(users.router)
router.include_router(listings.router)
