# product_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Product Service (dev mock)")


PRODUCTS = {
    "p-100": {
        "_id": "p-100",
        "name": "Vitrified Floor Tile 600x600",
        "images": [{"url": "https://img.example.com/p-100.jpg", "isPrimary": True}],
        "pricing": {"basePrice": 100.0, "salePrice": None},
        "inventory": {"stock": 5, "allowOutOfStockPurchase": False},
    },
    "p-200": {
        "_id": "p-200",
        "name": "Ceramic Wall Tile 300x450",
        "images": [],
        "pricing": {"basePrice": 80.0, "salePrice": 65.0},
        "inventory": {"stock": 40, "allowOutOfStockPurchase": False},
    },
    "p-300": {
        "_id": "p-300",
        "name": "Tile Adhesive 20kg",
        "images": [],
        "pricing": {"basePrice": 450.0, "salePrice": None},
        "inventory": {"stock": 0, "allowOutOfStockPurchase": True},
    },
}

@app.get("/products/{product_id}")
def get_product(product_id: str):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
