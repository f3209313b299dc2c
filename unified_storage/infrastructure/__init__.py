# Infrastructure layer - storage adapters and their vendor endpoints
