from minerboard.server import main

main()
