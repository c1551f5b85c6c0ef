# HTTP App
APP_TITLE               = "Sealed Estate Records"
APP_VERSION             = "1.0.0"

# Session
DEFAULT_WALLET_ADDRESS  = None      # set to connect a wallet at startup
AUTO_APPROVE            = True      # server-side signer approves every transaction

# Record Listing
SEARCH_MAX_LENGTH       = 128
