import uvicorn
from dotenv import load_dotenv

# Load environment variables before the settings module reads them
load_dotenv()

from qr_attendance import create_app  # noqa: E402

# Create the FastAPI app using the create_app function
app = create_app()

if __name__ == "__main__":
    uvicorn.run("qr_attendance.run:app", host="0.0.0.0", port=8000, reload=True)
