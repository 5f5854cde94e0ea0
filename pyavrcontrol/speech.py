"""Everything the skill says back to the user."""

HELLO = "What can I do for you?"
OK = "Ok."
HMM = "Hmm."
HELP = "Try commands such as: on, off, mute, unmute, volume 2, input 3."
VOLUME_ERROR = "Volume must be between 1 and 10."
INPUT_ERROR = "Input must be between 1 and 22."
RESPONSE_ERROR = "Don't think it worked..."
POWER_ALREADY_ON = "The receiver is already on."
POWER_ALREADY_OFF = "The receiver is already off."
TURN_POWER_ON = "The receiver is off. Turn it on first."
