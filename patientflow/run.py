"""
Patient Flow API Runner
"""

import uvicorn
from patientflow.core.config import Config


def main():
    """Run the Patient Flow API server."""
    uvicorn.run(
        "patientflow.api.main:app",
        host=Config.HOST,
        port=Config.PORT,
        reload=Config.DEBUG,
        log_level="info"
    )


if __name__ == "__main__":
    main()
