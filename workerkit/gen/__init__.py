"""Generation helpers: C byte arrays, text files, unique ids and JSON messages."""