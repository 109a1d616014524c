from dotenv import load_dotenv

# settings are read from the environment at import time
load_dotenv()
