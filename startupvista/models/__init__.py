# Database models
