from viewscreen.cli import main

main()
