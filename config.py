import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DB_DIR = BASE_DIR / "database"
DB_PATH = DB_DIR / "pos.db"

LOG_LEVEL = os.environ.get("POS_LOG_LEVEL", "INFO").upper()

CURRENCY_SYMBOL = "$"
LOW_STOCK_THRESHOLD = 5

# Staff tags a sale can be credited to.
RESPONSIBLE_PARTIES = ("Barbero Demo", "Personal 1", "Personal 2")

SEED_CATALOG = (
    {"id": "s1", "name": "Corte de Cabello", "kind": "SERVICE", "unit_price": 150},
    {"id": "s2", "name": "Corte de Barba", "kind": "SERVICE", "unit_price": 120},
    {"id": "s3", "name": "Corte + Barba", "kind": "SERVICE", "unit_price": 250},
    {"id": "s4", "name": "Perfilado de Cejas", "kind": "SERVICE", "unit_price": 50},
    {"id": "s5", "name": "Limpieza Facial", "kind": "SERVICE", "unit_price": 180},
    {"id": "s6", "name": "Paquete Premier (Corte, Barba, Exfoliación)", "kind": "SERVICE", "unit_price": 400},
    {"id": "s7", "name": "Paquete Infantil", "kind": "SERVICE", "unit_price": 130},
    {"id": "p1", "name": "Pomada Premium", "kind": "PRODUCT", "unit_price": 200, "brand": "Professional", "stock_level": 15, "unit_cost": 100},
    {"id": "p2", "name": "Cera Mate", "kind": "PRODUCT", "unit_price": 180, "brand": "Professional", "stock_level": 12, "unit_cost": 90},
    {"id": "p3", "name": "Aceite para Barba", "kind": "PRODUCT", "unit_price": 220, "brand": "Professional", "stock_level": 8, "unit_cost": 110},
    {"id": "p4", "name": "Shampoo Tonificante", "kind": "PRODUCT", "unit_price": 150, "brand": "Professional", "stock_level": 20, "unit_cost": 75},
    {"id": "p5", "name": "After Shave Balsam", "kind": "PRODUCT", "unit_price": 120, "brand": "Professional", "stock_level": 10, "unit_cost": 60},
    {"id": "p8", "name": "Agua Refrescante", "kind": "PRODUCT", "unit_price": 0, "brand": "General", "stock_level": 100, "unit_cost": 5},
)
