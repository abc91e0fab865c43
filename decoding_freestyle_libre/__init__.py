"""FreeStyle Libre sensor memory, NFC and BLE transmitter protocols."""
