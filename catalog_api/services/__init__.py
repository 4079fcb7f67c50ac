"""
Сервисы с бизнес-логикой
"""
