from vendorkit.cli import main

main()
