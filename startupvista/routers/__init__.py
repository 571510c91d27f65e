# API Routers

from startupvista.routers import auth, consultants, health, investors, posts, startups, users

__all__ = ["auth", "consultants", "health", "investors", "posts", "startups", "users"]
