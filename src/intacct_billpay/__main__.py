from intacct_billpay.cli import main

main()
