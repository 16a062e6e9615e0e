import os
import tempfile

# Must run before anything imports ticketswapper: settings and the engine are built at import
_db_dir = tempfile.mkdtemp(prefix="ticketswapper-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_db_dir, "test.db")
os.environ["ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "whsec_test"
os.environ["RAZORPAY_API_BASE"] = "https://gateway.test/v1"
os.environ["PNR_API_URL"] = "https://records.test/rest/v1/bus_tickets"
os.environ["PNR_API_KEY"] = "records-key"

from ticketswapper.db.init_db import create_tables  # noqa: E402

create_tables()
