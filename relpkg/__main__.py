from relpkg.cli.app import main

main()
