from financial_service import create_app
from financial_service.extensions import db

app = create_app()

@app.get("/db-check")
def db_check():
    from sqlalchemy import text
    try:
        db.session.execute(text("SELECT 1")).scalar()
        return {"connected": True, "database": db.engine.url.database}
    except Exception as e:
        return {"connected": False, "error": str(e)}, 500

if __name__ == "__main__":
    app.run(debug=True)
