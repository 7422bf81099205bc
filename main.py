from salon_booking.api.booking.appointments import appointments_bp
from salon_booking.api.booking.capacity import capacity_bp
from salon_booking.api.coupons.coupons import coupons_bp
from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv
from flasgger import Swagger
from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE
import logging
import os

load_dotenv()
from salon_booking.config import Config  # noqa: E402
from salon_booking.extensions import db  # noqa: E402
from salon_booking.services.scheduling.revenue import LoggingRevenueSink  # noqa: E402

# Configure logging
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger("apscheduler").setLevel(logging.WARNING)


def create_app(config_object=Config, revenue_sink=None, clock=None):
    print("Starting create_app()")
    app = Flask(__name__)
    try:
        app.config.from_object(config_object)
        app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO").upper())
        print(f"Config loaded: {len(app.config)} items")

        CORS(app)
        db.init_app(app)

        # Engine collaborators shared by every request
        app.extensions["revenue_sink"] = revenue_sink or LoggingRevenueSink()
        if clock is not None:
            app.extensions["booking_clock"] = clock

        # Determine host based on environment
        host = os.environ.get("API_HOST", "127.0.0.1:5000")
        swagger_template = SWAGGER_TEMPLATE.copy()
        swagger_template["host"] = host

        Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)
        print("Swagger initialized - Access at /api/docs")

        blueprints = [
            appointments_bp,
            capacity_bp,
            coupons_bp,
        ]

        for bp in blueprints:
            app.register_blueprint(bp)
            print(f"  ✓ {bp.name} registered")

        @app.route("/")
        def home():
            """
            Root endpoint - API status
            ---
            tags:
              - Utility
            responses:
              200:
                description: API is running
                schema:
                  type: object
                  properties:
                    status:
                      type: string
                    message:
                      type: string
            """
            return {"status": "ok", "message": "Booking engine is running!"}, 200

        if app.config.get("ENABLE_SCHEDULER"):
            from salon_booking.scheduler import init_scheduler

            init_scheduler(app)

    except Exception as e:
        print(f"Error during app creation: {e}")
        raise

    print("create_app() completed successfully")
    return app


app = create_app()


if __name__ == "__main__":
    # Create a .env containing:
    #       DATABASE_URL=mysql+pymysql://<USER>:<PASSWORD>@<HOST>:<PORT>/salon_booking
    # then run `python init_db.py` once to create tables and seed settings.

    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
