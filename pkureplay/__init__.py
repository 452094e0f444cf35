"""pkureplay – find and download PKU course replays."""
